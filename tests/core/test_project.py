# SPDX-License-Identifier: MIT
"""Tests for pbsys.core.project."""

from __future__ import annotations

from pathlib import Path

import pytest

from pbsys.core.errors import ConfigureError, LinkTypeMismatch
from pbsys.core.project import (
    ArtifactKind,
    Define,
    Language,
    LocalDependency,
    PendingDependency,
    ProjectBuilder,
    ProjectDescriptor,
    ProjectRegistry,
    new_project,
    parse_kind,
    parse_lang,
    project_registry,
)


class TestParseLang:
    @pytest.mark.parametrize(
        "lang,expected",
        [
            ("c", (Language.C, None)),
            ("gnu", (Language.C, None)),
            ("c99", (Language.C, "c99")),
            ("gnu11", (Language.C, "gnu11")),
            ("c1x", (Language.C, "c1x")),
            ("iso9899:1999", (Language.C, "iso9899:1999")),
            ("c++", (Language.CPP, None)),
            ("c++17", (Language.CPP, "c++17")),
            ("gnu++2a", (Language.CPP, "gnu++2a")),
            ("c++1z", (Language.CPP, "c++1z")),
        ],
    )
    def test_valid(self, lang, expected):
        assert parse_lang(lang) == expected

    @pytest.mark.parametrize("lang", ["rust", "C99", "c++17-foo", "", "iso:1999"])
    def test_invalid(self, lang):
        with pytest.raises(ConfigureError, match="cannot validate language"):
            parse_lang(lang)


class TestLanguage:
    def test_definition_keys(self):
        assert Language.C.definition_key == "c"
        assert Language.CPP.definition_key == "c++"

    def test_source_extensions(self):
        assert Language.C.source_extensions == (".c",)
        assert ".cpp" in Language.CPP.source_extensions
        assert ".cc" in Language.CPP.source_extensions


class TestArtifactKind:
    def test_parse_aliases(self):
        assert parse_kind("s") is ArtifactKind.STATIC
        assert parse_kind("dyn") is ArtifactKind.DYNAMIC
        assert parse_kind("d") is ArtifactKind.DYNAMIC
        assert parse_kind("BOTH") is ArtifactKind.BOTH
        assert parse_kind(ArtifactKind.STATIC) is ArtifactKind.STATIC

    def test_parse_invalid(self):
        with pytest.raises(ConfigureError, match="unknown library type"):
            parse_kind("shared")

    def test_satisfies(self):
        assert ArtifactKind.STATIC.satisfies(ArtifactKind.STATIC)
        assert not ArtifactKind.STATIC.satisfies(ArtifactKind.DYNAMIC)
        assert ArtifactKind.BOTH.satisfies(ArtifactKind.STATIC)
        assert ArtifactKind.BOTH.satisfies(ArtifactKind.DYNAMIC)

    def test_is_library(self):
        assert not ArtifactKind.NONE.is_library
        assert ArtifactKind.STATIC.is_library
        assert ArtifactKind.BOTH.includes_static
        assert ArtifactKind.BOTH.includes_dynamic


class TestDefine:
    def test_str(self):
        assert str(Define("DEBUG")) == "DEBUG"
        assert str(Define("LEVEL", "3")) == "LEVEL=3"


class TestProjectDescriptor:
    def test_output_name_defaults_to_name(self):
        assert ProjectDescriptor(name="app").output_name == "app"
        assert ProjectDescriptor(name="app", output_name="tool").output_name == "tool"

    def test_path_resolution(self, tmp_path):
        project = ProjectDescriptor(name="app", base_dir=tmp_path)
        assert project.path("src") == tmp_path / "src"
        assert project.path(Path("/abs/dir")) == Path("/abs/dir")

    def test_extra_source_extensions(self):
        project = ProjectDescriptor(name="app", source_extensions=(".inc", ".c"))
        assert project.all_source_extensions == (".c", ".inc")

    def test_is_immutable(self):
        project = ProjectDescriptor(name="app")
        with pytest.raises(AttributeError):
            project.name = "other"  # type: ignore[misc]


class TestProjectRegistry:
    def test_add_and_get(self):
        registry = ProjectRegistry()
        project = ProjectDescriptor(name="app")
        registry.add(project)

        assert registry["app"] is project
        assert registry.get("missing") is None
        assert "app" in registry
        assert len(registry) == 1
        assert registry.names() == ["app"]

    def test_duplicate_rejected(self):
        registry = ProjectRegistry()
        registry.add(ProjectDescriptor(name="app"))
        with pytest.raises(ConfigureError, match="already defined"):
            registry.add(ProjectDescriptor(name="app"))


class TestProjectBuilder:
    def builder(self, tmp_path, name="app", **kwargs) -> ProjectBuilder:
        kwargs.setdefault("registry", ProjectRegistry())
        return ProjectBuilder(name, base_dir=tmp_path, **kwargs)

    def test_defaults(self, tmp_path):
        project = self.builder(tmp_path).freeze()

        assert project.name == "app"
        assert project.output_name == "app"
        assert project.language is Language.C
        assert project.standard is None
        assert project.toolchain == "gnu"
        assert project.kind is ArtifactKind.NONE
        assert project.installable
        assert project.base_dir == tmp_path

    def test_options(self, tmp_path):
        project = self.builder(
            tmp_path,
            lang="c++17",
            output_name="tool",
            src_file_endings=["cu", ".inl"],
            no_install=True,
            lib_type="s",
        ).freeze()

        assert project.language is Language.CPP
        assert project.standard == "c++17"
        assert project.output_name == "tool"
        assert project.source_extensions == (".cu", ".inl")
        assert not project.installable
        assert project.kind is ArtifactKind.STATIC

    def test_empty_name_rejected(self, tmp_path):
        with pytest.raises(ConfigureError):
            self.builder(tmp_path, name="")

    def test_src_dir_must_exist(self, tmp_path):
        (tmp_path / "src").mkdir()
        builder = self.builder(tmp_path)
        builder.src_dir("src")
        with pytest.raises(ConfigureError, match="source dir is no directory"):
            builder.src_dir("missing")
        assert builder.freeze().source_dirs == (Path("src"),)

    @pytest.mark.parametrize("pattern", ["", "/abs/*.c"])
    def test_src_glob_must_be_relative(self, tmp_path, pattern):
        builder = self.builder(tmp_path).src_glob("extra/*.c")
        with pytest.raises(ConfigureError, match="relative to the base dir"):
            builder.src_glob(pattern)
        assert builder.freeze().source_globs == ("extra/*.c",)

    def test_include_dirs(self, tmp_path):
        (tmp_path / "private").mkdir()
        (tmp_path / "include").mkdir()
        project = (
            self.builder(tmp_path)
            .inc_dir("private")
            .inc_dir("include", public=True)
            .freeze()
        )
        assert project.include_dirs == (Path("private"),)
        assert project.public_include_dirs == (Path("include"),)

    def test_use_lib_adds_existing_path_only(self, tmp_path):
        (tmp_path / "vendor").mkdir()
        project = (
            self.builder(tmp_path)
            .use_lib("m")
            .use_lib("z", "missing")
            .use_lib("foo", "vendor")
            .freeze()
        )
        assert project.libs == ("m", "z", "foo")
        assert project.lib_dirs == (Path("vendor"),)

    def test_flags_defines_and_packages(self, tmp_path):
        project = (
            self.builder(tmp_path)
            .flag("-O2")
            .define("DEBUG")
            .define("LEVEL", 3)
            .package_flags("-I/opt/x/include -DX=1", ["-L/opt/x/lib", "-lx"])
            .freeze()
        )
        assert project.flags == ("-O2",)
        assert project.defines == (Define("DEBUG"), Define("LEVEL", "3"))
        assert project.package_cflags == ("-I/opt/x/include -DX=1",)
        assert project.package_ldflags == ("-L/opt/x/lib", "-lx")

    def test_no_install(self, tmp_path):
        assert not self.builder(tmp_path).no_install().freeze().installable

    def test_is_lib_none_rejected(self, tmp_path):
        with pytest.raises(ConfigureError):
            self.builder(tmp_path).is_lib("none")

    def test_frozen_builder_rejects_changes(self, tmp_path):
        builder = self.builder(tmp_path)
        project = builder.freeze()
        assert builder.freeze() is project
        with pytest.raises(ConfigureError, match="already frozen"):
            builder.flag("-O2")

    def test_context_manager_registers(self, tmp_path):
        registry = ProjectRegistry()
        with self.builder(tmp_path, registry=registry) as app:
            app.flag("-O2")
        assert registry["app"].flags == ("-O2",)

    def test_context_manager_error_does_not_register(self, tmp_path):
        registry = ProjectRegistry()
        with pytest.raises(ConfigureError):
            with self.builder(tmp_path, registry=registry) as app:
                app.src_dir("missing")
        assert "app" not in registry


class TestProjectBuilderUse:
    def test_use_local_library(self, tmp_path):
        registry = ProjectRegistry()
        lib = ProjectBuilder("mylib", base_dir=tmp_path, registry=registry)
        lib.is_lib("static")
        app = ProjectBuilder("app", base_dir=tmp_path, registry=registry).use(lib)

        (dep,) = app.freeze().dependencies
        assert isinstance(dep, LocalDependency)
        assert dep.name == "mylib"
        assert dep.project is registry["mylib"]
        assert dep.link_type is None

    def test_use_by_registered_name(self, tmp_path):
        registry = ProjectRegistry()
        ProjectBuilder(
            "mylib", base_dir=tmp_path, registry=registry, lib_type="both"
        ).freeze()
        app = ProjectBuilder("app", base_dir=tmp_path, registry=registry)
        app.use("mylib", "dyn")

        (dep,) = app.freeze().dependencies
        assert isinstance(dep, LocalDependency)
        assert dep.link_type is ArtifactKind.DYNAMIC

    def test_use_unknown_name_is_pending(self, tmp_path):
        app = ProjectBuilder("app", base_dir=tmp_path, registry=ProjectRegistry())
        app.use("zlib").use("png", "dynamic")

        assert app.freeze().dependencies == (
            PendingDependency("zlib", ArtifactKind.STATIC),
            PendingDependency("png", ArtifactKind.DYNAMIC),
        )

    def test_use_executable_rejected(self, tmp_path):
        registry = ProjectRegistry()
        ProjectBuilder("tool", base_dir=tmp_path, registry=registry).freeze()
        app = ProjectBuilder("app", base_dir=tmp_path, registry=registry)
        with pytest.raises(ConfigureError, match="not a library"):
            app.use("tool")

    def test_use_link_type_mismatch(self, tmp_path):
        registry = ProjectRegistry()
        ProjectBuilder(
            "mylib", base_dir=tmp_path, registry=registry, lib_type="static"
        ).freeze()
        app = ProjectBuilder("app", base_dir=tmp_path, registry=registry)
        with pytest.raises(LinkTypeMismatch) as exc_info:
            app.use("mylib", "dynamic")
        assert exc_info.value.requested == "dynamic"
        assert exc_info.value.provided == "static"


class TestNewProject:
    def test_registers_in_global_registry(self, tmp_path):
        with new_project("hello", base_dir=tmp_path, lang="c99") as hello:
            hello.define("GREETING", '"hi"')

        project = project_registry["hello"]
        assert project.standard == "c99"
        assert project.defines == (Define("GREETING", '"hi"'),)
