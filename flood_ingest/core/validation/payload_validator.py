"""Normalizador de payloads del gateway (formato TTGO y formato legacy).

El gateway TTGO ha enviado dos formas de payload a lo largo del tiempo:

- TTGO (nuevo): ``temperatura_c``, ``humedad_pct``, ``caudal_l_s``,
  ``lluvia_mm``, ``nivel_m``, ``seq``.
- Legacy: ``water_level_cm``, ``rain_accumulated_mm``, ``flow_rate_lmin``,
  ``temperature_c``, ``humidity_percent``, ``battery_percent``.

El formato se decide una sola vez por presencia de claves (nunca por orden)
y cada formato tiene su propio decoder. El resultado es siempre una
``Reading`` canónica.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from ...common.timeutils import as_utc, utc_now
from ...errors import ValidationError
from ..domain.reading import PayloadFormat, Reading, SignalInfo, signal_quality_for

logger = logging.getLogger(__name__)

TTGO_FIELDS = ("temperatura_c", "humedad_pct", "caudal_l_s", "lluvia_mm", "nivel_m")
LEGACY_FIELDS = (
    "water_level_cm",
    "rain_accumulated_mm",
    "flow_rate_lmin",
    "temperature_c",
    "humidity_percent",
    "battery_percent",
)

# Rangos válidos (inclusivos) de ambos formatos.
FIELD_RANGES: Dict[str, Tuple[float, float]] = {
    # TTGO
    "temperatura_c": (-50, 60),
    "humedad_pct": (0, 100),
    "caudal_l_s": (0, 10000),
    "lluvia_mm": (0, 10000),
    "nivel_m": (-10, 100),
    # Legacy
    "water_level_cm": (0, 500),
    "rain_accumulated_mm": (0, 10000),
    "flow_rate_lmin": (0, 10000),
    "temperature_c": (-50, 60),
    "humidity_percent": (0, 100),
    "battery_percent": (0, 100),
}

DEFAULT_TEMPERATURE = 20.0
DEFAULT_HUMIDITY = 50.0
DEFAULT_BATTERY = 100.0

# Un epoch numérico mayor que esto se interpreta como milisegundos.
MILLISECONDS_THRESHOLD = 10_000_000_000


def _coerce_number(field: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError(field, "must be a number")
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            # Entero JSON que no cabe en un double.
            bounds = FIELD_RANGES.get(field)
            if bounds is None:
                raise ValidationError(field, "out of supported range")
            raise ValidationError(field, f"must be between {bounds[0]} and {bounds[1]}")
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise ValidationError(field, "must be a number")
    else:
        raise ValidationError(field, "must be a number")

    if math.isnan(number):
        raise ValidationError(field, "must not be NaN")
    if math.isinf(number):
        raise ValidationError(field, "must not be infinite")
    return number


def _optional_number(payload: Mapping[str, Any], field: str) -> Optional[float]:
    value = payload.get(field)
    if value is None:
        return None
    return _coerce_number(field, value)


def normalize_timestamp(value: Any) -> datetime:
    """Convierte el timestamp del dispositivo a un instante UTC.

    - datetime: se toma tal cual (naive = UTC).
    - str: ISO-8601 (acepta sufijo ``Z``); un string numérico se trata como número.
    - número > 10.000.000.000: milisegundos; si no, segundos desde epoch.
    """
    if value is None:
        raise ValidationError("timestamp", "field required")

    if isinstance(value, datetime):
        return as_utc(value)

    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            raise ValidationError("timestamp", "field required")
        try:
            value = float(raw)
        except ValueError:
            try:
                return as_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
            except ValueError:
                raise ValidationError("timestamp", "must be an ISO-8601 date or epoch number")

    number = _coerce_number("timestamp", value)
    if number <= 0:
        raise ValidationError("timestamp", "must be a positive epoch")
    if number > MILLISECONDS_THRESHOLD:
        number = number / 1000.0
    try:
        return datetime.fromtimestamp(number, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise ValidationError("timestamp", "out of supported range")


def detect_format(payload: Mapping[str, Any]) -> PayloadFormat:
    """Decide el formato por presencia de claves: TTGO, si no legacy, si no rechazo."""
    if any(payload.get(f) is not None for f in TTGO_FIELDS):
        return PayloadFormat.TTGO
    if any(payload.get(f) is not None for f in LEGACY_FIELDS):
        return PayloadFormat.LEGACY
    raise ValidationError("payload", "no measurement fields of a known format")


def validate_ranges(payload: Mapping[str, Any]) -> None:
    """Valida cada campo presente (de cualquiera de los dos formatos)."""
    for field, (min_value, max_value) in FIELD_RANGES.items():
        if payload.get(field) is None:
            continue
        value = _coerce_number(field, payload[field])
        if value < min_value or value > max_value:
            raise ValidationError(field, f"must be between {min_value} and {max_value}")


def _decode_ttgo(payload: Mapping[str, Any]) -> Dict[str, Any]:
    caudal_l_s = _optional_number(payload, "caudal_l_s") or 0.0
    nivel_m = _optional_number(payload, "nivel_m") or 0.0
    temperature = _optional_number(payload, "temperatura_c")
    humidity = _optional_number(payload, "humedad_pct")
    battery = _optional_number(payload, "battery_percent")

    sequence = payload.get("seq")
    if sequence is not None:
        sequence = int(_coerce_number("seq", sequence))

    return {
        "water_level": nivel_m * 100.0,
        "rainfall_accumulated": _optional_number(payload, "lluvia_mm") or 0.0,
        "flow_rate": caudal_l_s * 60.0,
        "temperature": DEFAULT_TEMPERATURE if temperature is None else temperature,
        "humidity": DEFAULT_HUMIDITY if humidity is None else humidity,
        "battery": DEFAULT_BATTERY if battery is None else battery,
        "sequence": sequence,
    }


def _decode_legacy(payload: Mapping[str, Any]) -> Dict[str, Any]:
    temperature = _optional_number(payload, "temperature_c")
    humidity = _optional_number(payload, "humidity_percent")
    battery = _optional_number(payload, "battery_percent")

    return {
        "water_level": _optional_number(payload, "water_level_cm") or 0.0,
        "rainfall_accumulated": _optional_number(payload, "rain_accumulated_mm") or 0.0,
        "flow_rate": _optional_number(payload, "flow_rate_lmin") or 0.0,
        "temperature": DEFAULT_TEMPERATURE if temperature is None else temperature,
        "humidity": DEFAULT_HUMIDITY if humidity is None else humidity,
        "battery": DEFAULT_BATTERY if battery is None else battery,
        "sequence": None,
    }


_DECODERS: Dict[PayloadFormat, Callable[[Mapping[str, Any]], Dict[str, Any]]] = {
    PayloadFormat.TTGO: _decode_ttgo,
    PayloadFormat.LEGACY: _decode_legacy,
}


def _identifier(payload: Mapping[str, Any], field: str, required: bool) -> Optional[str]:
    value = payload.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(field, "field required")
        return None
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ValidationError(field, "must be a string")
    return str(value).strip()


class PayloadNormalizer:
    """Convierte un payload crudo del gateway en una ``Reading`` canónica.

    Responsabilidades:
    - Validar campos requeridos (timestamp, sensor_id)
    - Validar rangos de todos los campos presentes
    - Decodificar según el formato detectado
    - Derivar unidades canónicas y calidad de señal

    No tiene efectos secundarios.
    """

    def normalize(
        self,
        payload: Any,
        received_at: Optional[datetime] = None,
    ) -> Reading:
        if not isinstance(payload, Mapping):
            raise ValidationError("payload", "must be a JSON object")

        if payload.get("timestamp") is None:
            raise ValidationError("timestamp", "field required")

        validate_ranges(payload)
        payload_format = detect_format(payload)
        measurements = _DECODERS[payload_format](payload)

        sensor_id = _identifier(payload, "sensor_id", required=True)
        gateway_id = _identifier(payload, "gateway_id", required=False)
        timestamp = normalize_timestamp(payload.get("timestamp"))

        rssi = _optional_number(payload, "rssi")
        snr = _optional_number(payload, "snr")
        signal = None
        if rssi is not None or snr is not None:
            signal = SignalInfo(rssi=rssi, snr=snr, quality=signal_quality_for(rssi))

        return Reading(
            sensor_id=sensor_id,
            gateway_id=gateway_id,
            timestamp=timestamp,
            signal=signal,
            received_at=received_at or utc_now(),
            payload_format=payload_format,
            **measurements,
        )


_default_normalizer = PayloadNormalizer()


def normalize_payload(payload: Any, received_at: Optional[datetime] = None) -> Reading:
    """Atajo funcional sobre ``PayloadNormalizer.normalize``."""
    return _default_normalizer.normalize(payload, received_at=received_at)
