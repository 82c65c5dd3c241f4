from .settings import (
    Settings,
    MailSettings,
    TrackingSettings,
    DispatchSettings,
    UploadSettings,
    get_settings,
)
