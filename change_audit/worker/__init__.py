"""Worker RQ que persiste los registros de auditoría encolados."""
