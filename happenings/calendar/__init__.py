"""Event models, schedule pattern interpretation and occurrence expansion."""
