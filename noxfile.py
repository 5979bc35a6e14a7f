import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]

nox.options.sessions = ["tests"]


def _install(session: nox.Session) -> None:
    session.run("poetry", "install", "--all-extras", external=True)
    # psycopg2 ships a compiled extension; a cached wheel may target another interpreter.
    session.run("pip", "install", "--force-reinstall", "--no-cache-dir", "psycopg2-binary")


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Whole suite; extra pytest arguments are passed through."""
    _install(session)
    session.run("pytest", *session.posargs)


@nox.session(python=PYTHON_VERSIONS[-1])
@nox.parametrize("layer", ["domain", "application", "integration"])
def layer(session: nox.Session, layer: str) -> None:
    """One test layer at a time, selected by the directory marker."""
    _install(session)
    session.run("pytest", "-m", layer, *session.posargs)
