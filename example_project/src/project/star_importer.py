from project.values import *


def snapshot() -> list:
    return [USED_EXPORTED_CONST, used_exported_var]
