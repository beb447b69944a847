"""Internal constants shared across the library."""

USER_AGENT = "pyride/1"

#: Channel event names (server -> client and client -> server).
EVENT_CONNECTED = "connected"
EVENT_DISCONNECTED = "disconnected"
EVENT_LOCATION_UPDATE = "location_update"
EVENT_JOIN_RIDE = "join_ride"
EVENT_UPDATE_LOCATION = "update_location"

#: Fallback centre for simulated moves when nobody has a position (Munich).
DEFAULT_SIMULATION_CENTER = (48.1351, 11.5820)
