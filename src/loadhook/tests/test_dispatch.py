"""Tests for result classification and the load-hook dispatcher."""

import asyncio
import re
from types import SimpleNamespace

import pytest

from src.loadhook.cachedir import CacheRuntimeState
from src.loadhook.dispatch import (
    DispatchState,
    Dispatcher,
    Failed,
    LoadRegistry,
    Passthrough,
    Replaced,
    cached_transform,
    classify_result,
    module_build_pattern,
)
from src.loadhook.errors import ConfigurationError, UnexpectedResultShape
from src.loadhook.options import resolve_options


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return str(path)


def make_options(tmp_path, **raw):
    raw.setdefault("cache", {"enable": True, "base": str(tmp_path / "cache")})
    return resolve_options(raw)


def setup_dispatcher(transform, options, **kwargs):
    """Return a ready (dispatcher, registry) pair."""
    dispatcher = Dispatcher(
        transform, options, state=CacheRuntimeState(compiler_version="6.0.0"), **kwargs
    )
    registry = LoadRegistry()
    asyncio.run(dispatcher.setup(registry))
    return dispatcher, registry


class CountingTransform:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def __call__(self, source, identity):
        self.calls.append((source, identity))
        return self.result


class TestClassifyResult:
    def test_none_is_passthrough(self):
        assert classify_result(None) == Passthrough()

    def test_plain_string_is_passthrough(self):
        assert classify_result("const x = 2") == Passthrough()

    def test_mapping_with_code(self):
        assert classify_result({"code": "const x = 2", "map": None}) == Replaced("const x = 2")

    def test_object_with_code(self):
        assert classify_result(SimpleNamespace(code="y")) == Replaced("y")

    def test_tagged_results_pass_through(self):
        assert classify_result(Replaced("z")) == Replaced("z")
        assert classify_result(Passthrough()) == Passthrough()

    def test_failed_raises_its_error(self):
        with pytest.raises(ValueError, match="bad type"):
            classify_result(Failed(ValueError("bad type")))

    def test_none_code_is_passthrough(self):
        assert classify_result({"code": None}) == Passthrough()
        assert classify_result(SimpleNamespace(code=None)) == Passthrough()

    @pytest.mark.parametrize("result", [{"code": 42}, SimpleNamespace(code=b"x")],
                             ids=["mapping", "attribute"])
    def test_non_string_code_is_rejected(self, result):
        with pytest.raises(UnexpectedResultShape):
            classify_result(result)

    @pytest.mark.parametrize("result", [42, ["code"], {"map": None}])
    def test_unexpected_shapes(self, result):
        with pytest.raises(UnexpectedResultShape):
            classify_result(result)


class TestCachedTransform:
    def test_replaced_is_served_and_cached(self, tmp_path):
        options = make_options(tmp_path)
        state = CacheRuntimeState(compiler_version="6.0.0")
        transform = CountingTransform({"code": "const x = 2"})

        first = asyncio.run(cached_transform("/p/src/a.ts", "const x = 1", transform, options, state))
        second = asyncio.run(cached_transform("/p/src/a.ts", "const x = 1", transform, options, state))

        assert first == second == "const x = 2"
        assert len(transform.calls) == 1

    def test_passthrough_serves_source(self, tmp_path):
        options = make_options(tmp_path)
        state = CacheRuntimeState(compiler_version="6.0.0")
        transform = CountingTransform(None)

        served = asyncio.run(cached_transform("/p/src/a.ts", "const x = 1", transform, options, state))

        assert served == "const x = 1"
        assert list((tmp_path / "cache").iterdir()) == []

    def test_async_transform(self, tmp_path):
        options = make_options(tmp_path, cache=False)

        async def transform(source, identity):
            return {"code": source.upper()}

        served = asyncio.run(cached_transform(
            "/p/a.ts", "abc", transform, options, CacheRuntimeState(compiler_version="1"),
        ))
        assert served == "ABC"

    def test_transform_errors_propagate(self, tmp_path):
        options = make_options(tmp_path, cache=False)

        def transform(source, identity):
            raise RuntimeError("compiler crashed")

        with pytest.raises(RuntimeError, match="compiler crashed"):
            asyncio.run(cached_transform(
                "/p/a.ts", "abc", transform, options, CacheRuntimeState(compiler_version="1"),
            ))


class TestDispatcher:
    def test_replaced_end_to_end(self, tmp_path):
        path = write(tmp_path / "src" / "index.ts", "const x = 1")
        _, registry = setup_dispatcher(lambda s, i: {"code": "const x = 2"}, make_options(tmp_path))
        assert asyncio.run(registry.load(path)) == {"contents": "const x = 2"}

    def test_passthrough_end_to_end(self, tmp_path):
        path = write(tmp_path / "src" / "index.ts", "const x = 1")
        _, registry = setup_dispatcher(lambda s, i: None, make_options(tmp_path))
        assert asyncio.run(registry.load(path)) == {"contents": "const x = 1"}

    def test_none_code_serves_source(self, tmp_path):
        path = write(tmp_path / "src" / "index.ts", "const x = 1")
        _, registry = setup_dispatcher(lambda s, i: {"code": None}, make_options(tmp_path))
        assert asyncio.run(registry.load(path)) == {"contents": "const x = 1"}

    def test_non_string_code_aborts_without_caching(self, tmp_path):
        path = write(tmp_path / "src" / "index.ts", "const x = 1")
        _, registry = setup_dispatcher(lambda s, i: {"code": 42}, make_options(tmp_path))
        with pytest.raises(UnexpectedResultShape):
            asyncio.run(registry.load(path))
        assert list((tmp_path / "cache").iterdir()) == []

    def test_transform_receives_source_and_identity(self, tmp_path):
        path = write(tmp_path / "src" / "index.ts", "const x = 1")
        transform = CountingTransform(None)
        _, registry = setup_dispatcher(transform, make_options(tmp_path))
        asyncio.run(registry.load(path))
        assert transform.calls == [("const x = 1", path)]

    def test_cache_hit_skips_transform(self, tmp_path):
        path = write(tmp_path / "src" / "index.ts", "const x = 1")
        transform = CountingTransform({"code": "const x = 2"})
        _, registry = setup_dispatcher(transform, make_options(tmp_path))

        asyncio.run(registry.load(path))
        assert asyncio.run(registry.load(path)) == {"contents": "const x = 2"}
        assert len(transform.calls) == 1

    def test_unmatched_path_is_not_claimed(self, tmp_path):
        path = write(tmp_path / "style.css", "body {}")
        _, registry = setup_dispatcher(lambda s, i: {"code": "x"}, make_options(tmp_path))
        assert asyncio.run(registry.load(path)) is None

    def test_excluded_path_is_not_claimed(self, tmp_path):
        path = write(tmp_path / "node_modules" / "dep" / "index.js", "module.exports = 1")
        transform = CountingTransform({"code": "x"})
        _, registry = setup_dispatcher(transform, make_options(tmp_path))
        assert asyncio.run(registry.load(path)) is None
        assert transform.calls == []

    def test_one_handler_per_include_pattern(self, tmp_path):
        include = [re.compile(r"\.ts$"), re.compile(r"\.tsx$")]
        _, registry = setup_dispatcher(
            lambda s, i: None, make_options(tmp_path, include=include, force_module_rewrite=False),
        )
        assert registry.patterns == include

    def test_state_transitions(self, tmp_path):
        dispatcher = Dispatcher(lambda s, i: None, make_options(tmp_path))
        assert dispatcher.state is DispatchState.UNCONFIGURED
        asyncio.run(dispatcher.setup(LoadRegistry()))
        assert dispatcher.state is DispatchState.READY

    def test_second_setup_is_rejected(self, tmp_path):
        dispatcher, _ = setup_dispatcher(lambda s, i: None, make_options(tmp_path))
        with pytest.raises(ConfigurationError, match="already set up"):
            asyncio.run(dispatcher.setup(LoadRegistry()))

    def test_invalid_include_fails_before_registration(self, tmp_path):
        dispatcher = Dispatcher(lambda s, i: None, make_options(tmp_path, include=[]))
        registry = LoadRegistry()
        with pytest.raises(ConfigurationError):
            asyncio.run(dispatcher.setup(registry))
        assert registry.patterns == []
        assert dispatcher.state is DispatchState.UNCONFIGURED

    def test_missing_transform(self, tmp_path):
        dispatcher = Dispatcher(None, make_options(tmp_path))
        with pytest.raises(ConfigurationError, match="transform is not defined"):
            asyncio.run(dispatcher.setup(LoadRegistry()))

    def test_build_start_runs_once_during_setup(self, tmp_path):
        calls = []

        async def build_start():
            calls.append("start")

        setup_dispatcher(lambda s, i: None, make_options(tmp_path), build_start=build_start)
        assert calls == ["start"]

    def test_unexpected_result_aborts_load(self, tmp_path):
        path = write(tmp_path / "index.ts", "const x = 1")
        _, registry = setup_dispatcher(lambda s, i: 42, make_options(tmp_path))
        with pytest.raises(UnexpectedResultShape):
            asyncio.run(registry.load(path))


class TestModuleBuildRewrite:
    def test_pattern(self):
        pattern = module_build_pattern("typia")
        assert pattern.search("/p/node_modules/typia/lib/index.js")
        assert pattern.search("/p/node_modules/typia/lib/functional/$guard.js")
        assert not pattern.search("/p/node_modules/typia/lib/index.mjs")
        assert not pattern.search("/p/node_modules/other/lib/index.js")

    def test_serves_module_sibling(self, tmp_path):
        lib = tmp_path / "node_modules" / "typia" / "lib"
        cjs = write(lib / "index.js", "module.exports = {}")
        write(lib / "index.mjs", "export default {}")
        transform = CountingTransform({"code": "never"})
        _, registry = setup_dispatcher(transform, make_options(tmp_path, exclude=[]))

        assert asyncio.run(registry.load(cjs)) == {"contents": "export default {}"}
        assert transform.calls == []
        assert not (tmp_path / "cache").exists()

    def test_rewrite_can_be_disabled(self, tmp_path):
        lib = tmp_path / "node_modules" / "typia" / "lib"
        cjs = write(lib / "index.js", "module.exports = {}")
        _, registry = setup_dispatcher(
            lambda s, i: None, make_options(tmp_path, force_module_rewrite=False),
        )
        assert asyncio.run(registry.load(cjs)) is None

    def test_missing_module_sibling_propagates(self, tmp_path):
        cjs = write(tmp_path / "node_modules" / "typia" / "lib" / "index.js", "x")
        _, registry = setup_dispatcher(lambda s, i: None, make_options(tmp_path))
        with pytest.raises(FileNotFoundError):
            asyncio.run(registry.load(cjs))
