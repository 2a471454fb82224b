from mortarql.migrations.ledger import MigrationLedger

__all__ = ["MigrationLedger"]
