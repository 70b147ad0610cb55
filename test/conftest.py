from pytest import fixture

from aiodispose import ExitRegistry


@fixture(params=["asyncio", "trio"])
def anyio_backend(request):
    return request.param


@fixture
def registry():
    return ExitRegistry()
