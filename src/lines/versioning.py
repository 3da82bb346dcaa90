from importlib.metadata import version, PackageNotFoundError


def get_version() -> str:
    try:
        return version("lines-scheduler")
    except PackageNotFoundError:
        return "0.0.0"
