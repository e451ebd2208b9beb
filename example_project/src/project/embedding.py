from project import values


class Derived(values.EmbeddedBase):
    pass


def call() -> str:
    return Derived().inherited_method()
