from mail_dispatcher.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
