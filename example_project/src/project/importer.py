import project.values


def main() -> int:
    print(project.values.USED_EXPORTED_CONST, project.values.used_exported_var)
    s = project.values.used_exported_func()
    return s.used_exported_method()
