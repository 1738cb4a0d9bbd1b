from packages.usage.models.database.usage_record import UsageRecordEntity

__all__ = ["UsageRecordEntity"]
