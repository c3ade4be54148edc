"""Jobs de fondo."""
