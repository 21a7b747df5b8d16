import os


class Env:
    def __init__(self):
        self.database = os.getenv("PYDBI_SQLITE_DATABASE", ":memory:")
        self.many_rows = 25


ENV = Env()
