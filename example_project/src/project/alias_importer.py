import project.values as v


def check(item: v.UsedExportedInterface) -> int:
    return item.used_interface_method()
