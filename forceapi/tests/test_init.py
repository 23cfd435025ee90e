import forceapi


def test_version():
    assert isinstance(forceapi.__version__, str)
    assert forceapi.__version__
    assert not hasattr(forceapi, "__location__")
