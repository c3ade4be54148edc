"""Pipeline de ingesta: dedup, persistencia y bookkeeping de gateways."""
