"""Tuning file schema for n8nstack."""

TUNING_SCHEMA = {
    "type": "object",
    "properties": {
        "execution_mode": {
            "type": "string",
            "enum": ["regular", "queue"],
            "description": "regular runs workflows in the main process, queue hands them to workers",
        },
        "worker_concurrency": {"type": "integer", "minimum": 1, "maximum": 20},
        "worker_replicas": {"type": "integer", "minimum": 1},
        "execution_max_age_hours": {"type": "integer", "minimum": 1},
        "execution_max_count": {"type": "integer", "minimum": 1},
        "payload_size_max_mb": {"type": "integer", "minimum": 1, "maximum": 1024},
        "binary_data_mode": {"type": "string", "enum": ["default", "filesystem"]},
        "proxy_hops": {"type": "integer", "minimum": 0, "maximum": 10},
        "timezone": {"type": "string", "minLength": 1},
        "version": {
            "type": "string",
            "pattern": r"^(latest|next|\d+\.\d+\.\d+)$",
        },
        "extra_env": {
            "type": "object",
            "propertyNames": {"pattern": r"^[A-Z_][A-Z0-9_]*$"},
            "additionalProperties": {"type": ["string", "number", "boolean"]},
        },
    },
    "additionalProperties": False,
}
