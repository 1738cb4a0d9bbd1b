from packages.usage.repositories.usage_record_repository import UsageRecordRepository

__all__ = ["UsageRecordRepository"]
