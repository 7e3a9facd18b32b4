"""Internal constants shared across the package."""

USER_AGENT = "tzsync"

# ------------------------------------------------------------------
# iwd station signals
# ------------------------------------------------------------------

IWD_BUS_NAME = "net.connman.iwd"
STATION_INTERFACE = "net.connman.iwd.Station"
STATE_PROPERTY = "State"
CONNECTED_STATE = "connected"

PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"
PROPERTIES_CHANGED = "PropertiesChanged"

# ------------------------------------------------------------------
# systemd-timedated
# ------------------------------------------------------------------

TIMEDATE_BUS_NAME = "org.freedesktop.timedate1"
TIMEDATE_PATH = "/org/freedesktop/timedate1"
TIMEDATE_INTERFACE = "org.freedesktop.timedate1"
SET_TIMEZONE = "SetTimezone"

#: Seconds to wait for the ``SetTimezone`` reply.
APPLY_TIMEOUT: float = 2.0

# ------------------------------------------------------------------
# Geo-IP lookup
# ------------------------------------------------------------------

GEOIP_URL = "https://ipapi.co/timezone"
LOOKUP_TIMEOUT: float = 10.0
