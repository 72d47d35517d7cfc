from deal_tracker.config.loader import clear_cache, load_analytics_settings
from deal_tracker.config.schema import AnalyticsSettings

__all__ = ["AnalyticsSettings", "clear_cache", "load_analytics_settings"]
