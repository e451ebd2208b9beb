import project.values as pv


def reach() -> str:
    target = pv.maybe_optional_target()
    if target is None:
        return ""
    return target.reached_through_optional()
