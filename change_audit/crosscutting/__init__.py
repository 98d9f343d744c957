"""Crosscutting del pipeline de auditoría: config, logging, errores, métricas."""
