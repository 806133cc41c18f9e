from enum import Enum

class BootStage(str, Enum):
    REGISTER = "REGISTER"
    DESCRIBE = "DESCRIBE"
    MATERIALIZE = "MATERIALIZE"
    BIND_ROUTES = "BIND_ROUTES"
    NAVIGATION = "NAVIGATION"
    DONE = "DONE"
    ROLLBACK = "ROLLBACK"
