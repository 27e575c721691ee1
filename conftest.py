pytest_plugins = [
    "tests.fixtures.storage_fixtures",
]
