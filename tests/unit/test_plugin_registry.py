"""
Tests for the Plugin Registry.

This test suite covers:
1. Plugin name validation
2. Adding plugins (clone staging, duplicates, failed clones)
3. Listing plugins, with and without URL/ref lookups
4. Removing plugins
5. Updating one plugin and all plugins with per-plugin outcomes
6. End-to-end behaviour against real local git repositories
"""

import shutil
import tempfile
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from rtvm import installs
from rtvm.config import Config
from rtvm.errors import (
    ExternalOperationError,
    GitError,
    InvalidPluginName,
    PluginAlreadyExists,
    PluginNotFound,
)
from rtvm.plugin import registry
from rtvm.plugin.registry import Plugin

from git_helpers import commit, git, make_repo

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def fake_clone(repo_url: str, target_dir: Path) -> None:
    (target_dir / "README").write_text(repo_url)


def _make_plugin_dirs(conf: Config, *names: str) -> None:
    for name in names:
        (registry.plugins_root(conf) / name).mkdir(parents=True)


class TestValidateName:
    """Test plugin name validation."""

    def test_valid_names(self):
        for name in ["lua", "nodejs", "python-3", "my_tool"]:
            registry.validate_name(name)

    def test_empty_name(self):
        with pytest.raises(InvalidPluginName, match="must not be empty"):
            registry.validate_name("")

    def test_unsafe_names(self):
        for name in ["..", "a/b", ".hidden", "Lua", "with space"]:
            with pytest.raises(InvalidPluginName, match="is invalid"):
                registry.validate_name(name)

    def test_is_a_value_error(self):
        with pytest.raises(ValueError):
            registry.validate_name("")


class TestPlugin:
    """Test the Plugin handle."""

    def test_dir_layout(self):
        conf = Config(data_dir=Path("/x"))
        plugin = Plugin.new(conf, "lua")

        assert plugin.name == "lua"
        assert str(plugin.dir) == "/x/plugins/lua"

    def test_url_and_ref_empty_when_not_a_checkout(self):
        """Should return empty strings instead of raising."""
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))
            plugin = Plugin.new(conf, "lua")

            with patch(
                "rtvm.plugin.git_ops._run_git", side_effect=GitError("not a git repository")
            ):
                assert plugin.url == ""
                assert plugin.ref == ""

    def test_attributes_are_read_every_time(self):
        """URL and ref must reflect the current checkout, not a cached value."""
        conf = Config(data_dir=Path("/x"))
        plugin = Plugin.new(conf, "lua")

        with patch("rtvm.plugin.git_ops.current_ref", side_effect=["aaa", "bbb"]) as current_ref:
            assert plugin.ref == "aaa"
            assert plugin.ref == "bbb"
            assert current_ref.call_count == 2


class TestAdd:
    """Test adding plugins."""

    def test_add_clones_into_plugin_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))

            with patch("rtvm.plugin.git_ops.clone", side_effect=fake_clone) as clone:
                plugin = registry.add(conf, "lua", "https://example.com/asdf-lua.git")

            assert clone.call_count == 1
            assert plugin.dir == Path(tmpdir) / "plugins" / "lua"
            assert (plugin.dir / "README").read_text() == "https://example.com/asdf-lua.git"
            assert [p.name for p in registry.plugins_root(conf).iterdir()] == ["lua"]

    def test_add_twice(self):
        """Second add should raise PluginAlreadyExists and not touch the checkout."""
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))

            with patch("rtvm.plugin.git_ops.clone", side_effect=fake_clone) as clone:
                registry.add(conf, "lua", "https://example.com/first.git")

                with pytest.raises(PluginAlreadyExists, match="Plugin named lua already added"):
                    registry.add(conf, "lua", "https://example.com/second.git")

                assert clone.call_count == 1

            readme = registry.plugins_root(conf) / "lua" / "README"
            assert readme.read_text() == "https://example.com/first.git"

    def test_failed_clone_leaves_nothing(self):
        """A failed clone should not leave a plugin or staging directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))

            def broken_clone(repo_url, target_dir):
                (target_dir / "half-written").write_text("")
                raise GitError("fatal: repository not found", returncode=128)

            with patch("rtvm.plugin.git_ops.clone", side_effect=broken_clone):
                with pytest.raises(GitError, match="repository not found"):
                    registry.add(conf, "lua", "https://example.com/missing.git")

            assert list(registry.plugins_root(conf).iterdir()) == []
            assert registry.list_plugins(conf) == []

    def test_empty_name(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))

            with pytest.raises(InvalidPluginName):
                registry.add(conf, "", "https://example.com/lua.git")

    def test_short_name_uses_index(self):
        """Without a URL the plugin index supplies one."""
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))

            with patch(
                "rtvm.plugin.index.resolve_url", return_value="https://example.com/asdf-lua.git"
            ) as resolve_url, patch("rtvm.plugin.git_ops.clone", side_effect=fake_clone):
                plugin = registry.add(conf, "lua")

            resolve_url.assert_called_once_with(conf, "lua")
            assert (plugin.dir / "README").read_text() == "https://example.com/asdf-lua.git"

    def test_explicit_url_skips_index(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))

            with patch("rtvm.plugin.index.resolve_url") as resolve_url, patch(
                "rtvm.plugin.git_ops.clone", side_effect=fake_clone
            ):
                registry.add(conf, "lua", "https://example.com/asdf-lua.git")

            resolve_url.assert_not_called()


class TestList:
    """Test listing plugins."""

    def test_empty(self):
        """No plugins directory yet is an empty list, not an error."""
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))

            assert registry.list_plugins(conf) == []

    def test_sorted_by_name(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))
            _make_plugin_dirs(conf, "ruby", "elixir", "lua")

            names = [listing.name for listing in registry.list_plugins(conf)]

            assert names == ["elixir", "lua", "ruby"]

    def test_skips_files_and_staging_dirs(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))
            _make_plugin_dirs(conf, "lua", ".nodejs-x1y2.tmp")
            (registry.plugins_root(conf) / "notes.txt").write_text("")

            names = [listing.name for listing in registry.list_plugins(conf)]

            assert names == ["lua"]

    def test_no_git_lookups_without_flags(self):
        """Listing names only must not ask git for URLs or refs."""
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))
            _make_plugin_dirs(conf, "elixir", "lua")

            with patch("rtvm.plugin.git_ops.remote_url") as remote_url, patch(
                "rtvm.plugin.git_ops.current_ref"
            ) as current_ref:
                listings = registry.list_plugins(conf, include_urls=False, include_refs=False)

            assert [listing.name for listing in listings] == ["elixir", "lua"]
            assert all(listing.url is None and listing.ref is None for listing in listings)
            remote_url.assert_not_called()
            current_ref.assert_not_called()

    def test_urls_only(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))
            _make_plugin_dirs(conf, "lua")

            with patch(
                "rtvm.plugin.git_ops.remote_url", return_value="https://example.com/lua.git"
            ) as remote_url, patch("rtvm.plugin.git_ops.current_ref") as current_ref:
                (listing,) = registry.list_plugins(conf, include_urls=True)

            assert listing.url == "https://example.com/lua.git"
            assert listing.ref is None
            remote_url.assert_called_once_with(registry.plugins_root(conf) / "lua")
            current_ref.assert_not_called()

    def test_urls_and_refs(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))
            _make_plugin_dirs(conf, "lua")

            with patch(
                "rtvm.plugin.git_ops.remote_url", return_value="https://example.com/lua.git"
            ), patch("rtvm.plugin.git_ops.current_ref", return_value="abc123"):
                (listing,) = registry.list_plugins(conf, include_urls=True, include_refs=True)

            assert listing.url == "https://example.com/lua.git"
            assert listing.ref == "abc123"


class TestRemove:
    """Test removing plugins."""

    def test_remove_missing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))

            with pytest.raises(PluginNotFound, match="No such plugin: lua"):
                registry.remove(conf, "lua")

    def test_remove_existing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))
            _make_plugin_dirs(conf, "elixir", "lua")
            (registry.plugins_root(conf) / "lua" / "bin").mkdir()

            registry.remove(conf, "lua")

            assert [listing.name for listing in registry.list_plugins(conf)] == ["elixir"]
            assert not (registry.plugins_root(conf) / "lua").exists()

    def test_remove_keeps_installs_by_default(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))
            _make_plugin_dirs(conf, "lua")
            plugin = Plugin.new(conf, "lua")
            installs.install_path(conf, plugin, "5.4.6").mkdir(parents=True)

            registry.remove(conf, "lua")

            assert installs.is_installed(conf, plugin, "5.4.6")

    def test_remove_purge(self):
        """--purge also deletes installs and downloads."""
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))
            _make_plugin_dirs(conf, "lua")
            plugin = Plugin.new(conf, "lua")
            installs.install_path(conf, plugin, "5.4.6").mkdir(parents=True)
            installs.download_path(conf, plugin, "5.4.6").mkdir(parents=True)

            registry.remove(conf, "lua", purge=True)

            assert not installs.plugin_installs_dir(conf, plugin).exists()
            assert not installs.plugin_downloads_dir(conf, plugin).exists()

    def test_failed_purge_keeps_plugin(self):
        """The checkout is deleted last, so a failed purge can be retried."""
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))
            _make_plugin_dirs(conf, "lua")
            plugin = Plugin.new(conf, "lua")
            installs.install_path(conf, plugin, "5.4.6").mkdir(parents=True)

            with patch("shutil.rmtree", side_effect=PermissionError("denied")):
                with pytest.raises(ExternalOperationError, match="denied"):
                    registry.remove(conf, "lua", purge=True)

            assert plugin.exists
            assert [listing.name for listing in registry.list_plugins(conf)] == ["lua"]


class TestUpdate:
    """Test updating plugins."""

    def test_update_missing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))

            with pytest.raises(PluginNotFound):
                registry.update(conf, "lua")

    def test_update_to_default_branch(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))
            _make_plugin_dirs(conf, "lua")
            plugin_dir = registry.plugins_root(conf) / "lua"

            with patch("rtvm.plugin.git_ops.fetch") as fetch, patch(
                "rtvm.plugin.git_ops.checkout_default_branch", return_value="main"
            ) as checkout_default_branch, patch(
                "rtvm.plugin.git_ops.checkout"
            ) as checkout, patch(
                "rtvm.plugin.git_ops.current_ref", return_value="abc123"
            ):
                assert registry.update(conf, "lua") == "abc123"

            fetch.assert_called_once_with(plugin_dir)
            checkout_default_branch.assert_called_once_with(plugin_dir)
            checkout.assert_not_called()

    def test_update_to_ref(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))
            _make_plugin_dirs(conf, "lua")
            plugin_dir = registry.plugins_root(conf) / "lua"

            with patch("rtvm.plugin.git_ops.fetch"), patch(
                "rtvm.plugin.git_ops.checkout_default_branch"
            ) as checkout_default_branch, patch(
                "rtvm.plugin.git_ops.checkout"
            ) as checkout, patch(
                "rtvm.plugin.git_ops.current_ref", return_value="def456"
            ):
                assert registry.update(conf, "lua", "v1.2.0") == "def456"

            checkout.assert_called_once_with(plugin_dir, "v1.2.0")
            checkout_default_branch.assert_not_called()

    def test_fetch_failure_propagates(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))
            _make_plugin_dirs(conf, "lua")

            with patch("rtvm.plugin.git_ops.fetch", side_effect=GitError("network down")):
                with pytest.raises(GitError, match="network down"):
                    registry.update(conf, "lua")


class TestUpdateAll:
    """Test updating every plugin."""

    def test_partial_failure(self):
        """A failure on the second plugin must not stop the first and third."""
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))
            _make_plugin_dirs(conf, "elixir", "lua", "ruby")
            failure = GitError("fetch failed")

            def fake_update(config, name, ref=""):
                if name == "lua":
                    raise failure
                return f"{name}-ref"

            with patch("rtvm.plugin.registry.update", side_effect=fake_update) as update:
                results = registry.update_all(conf)

            assert update.call_count == 3
            assert [result.name for result in results] == ["elixir", "lua", "ruby"]
            assert [result.ok for result in results] == [True, False, True]
            assert results[0].ref == "elixir-ref"
            assert results[1].ref is None
            assert results[1].error is failure
            assert results[2].ref == "ruby-ref"

    def test_no_plugins(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))

            assert registry.update_all(conf) == []

    def test_parallel_keeps_order(self):
        """Results follow list order even when updates finish out of order."""
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir))
            names = ["a", "b", "c", "d"]
            _make_plugin_dirs(conf, *names)
            first_done = threading.Event()

            def fake_update(config, name, ref=""):
                if name == "a":
                    # Finish last
                    first_done.wait(timeout=5)
                else:
                    first_done.set()
                if name == "c":
                    raise GitError("boom")
                return name.upper()

            with patch("rtvm.plugin.registry.update", side_effect=fake_update):
                results = registry.update_all(conf, max_workers=4)

            assert [result.name for result in results] == names
            assert [result.ref for result in results] == ["A", "B", None, "D"]
            assert not results[2].ok


@requires_git
class TestWithGitRepositories:
    """End-to-end tests against real local git repositories."""

    def test_add_records_url_and_ref(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            upstream = make_repo(Path(tmpdir) / "upstream" / "asdf-lua")
            head = git(upstream, "rev-parse", "HEAD")
            conf = Config(data_dir=Path(tmpdir) / "data")

            plugin = registry.add(conf, "lua", str(upstream))

            assert plugin.url == str(upstream)
            assert plugin.ref == head
            (listing,) = registry.list_plugins(conf, include_urls=True, include_refs=True)
            assert (listing.name, listing.url, listing.ref) == ("lua", str(upstream), head)

    def test_add_bad_url(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir) / "data")

            with pytest.raises(GitError) as exc_info:
                registry.add(conf, "lua", str(Path(tmpdir) / "does-not-exist"))

            assert exc_info.value.returncode not in (None, 0)
            assert list(registry.plugins_root(conf).iterdir()) == []

    def test_update_follows_upstream(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            upstream = make_repo(Path(tmpdir) / "upstream")
            first = git(upstream, "rev-parse", "HEAD")
            conf = Config(data_dir=Path(tmpdir) / "data")
            registry.add(conf, "lua", str(upstream))

            second = commit(upstream, "second")

            assert registry.update(conf, "lua") == second
            # Nothing new upstream: same result
            assert registry.update(conf, "lua") == second

            assert registry.update(conf, "lua", first) == first
            assert Plugin.new(conf, "lua").ref == first

            # Back to the default branch tip
            assert registry.update(conf, "lua") == second

    def test_update_to_branch_name(self):
        """Naming the branch should give the fetched tip, not the old local one."""
        with tempfile.TemporaryDirectory() as tmpdir:
            upstream = make_repo(Path(tmpdir) / "upstream")
            conf = Config(data_dir=Path(tmpdir) / "data")
            registry.add(conf, "lua", str(upstream))

            second = commit(upstream, "second")

            assert registry.update(conf, "lua", "main") == second

    def test_plugin_dir_inside_another_repository(self):
        """A data dir under a user's work tree must never touch that repository."""
        with tempfile.TemporaryDirectory() as tmpdir:
            home = make_repo(Path(tmpdir) / "home")
            (home / "CHANGES").write_text("uncommitted user work\n")
            conf = Config(data_dir=home / ".rtvm")
            _make_plugin_dirs(conf, "lua")
            plugin = Plugin.new(conf, "lua")

            assert plugin.url == ""
            assert plugin.ref == ""

            with pytest.raises(GitError):
                registry.update(conf, "lua")

            (result,) = registry.update_all(conf)
            assert not result.ok
            assert (home / "CHANGES").read_text() == "uncommitted user work\n"

    def test_update_to_tag(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            upstream = make_repo(Path(tmpdir) / "upstream")
            conf = Config(data_dir=Path(tmpdir) / "data")
            registry.add(conf, "lua", str(upstream))

            tagged = commit(upstream, "release")
            git(upstream, "tag", "v1.0.0")
            commit(upstream, "after release")

            assert registry.update(conf, "lua", "v1.0.0") == tagged

    def test_update_unknown_ref(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            upstream = make_repo(Path(tmpdir) / "upstream")
            conf = Config(data_dir=Path(tmpdir) / "data")
            registry.add(conf, "lua", str(upstream))

            with pytest.raises(GitError):
                registry.update(conf, "lua", "no-such-ref")

    def test_update_all_with_missing_upstream(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            conf = Config(data_dir=Path(tmpdir) / "data")
            upstreams = {}
            for name in ["elixir", "lua", "ruby"]:
                upstreams[name] = make_repo(Path(tmpdir) / "upstream" / name)
                registry.add(conf, name, str(upstreams[name]))

            shutil.rmtree(upstreams["lua"])
            new_ruby = commit(upstreams["ruby"], "ruby update")

            results = registry.update_all(conf)

            assert [result.name for result in results] == ["elixir", "lua", "ruby"]
            assert results[0].ok
            assert isinstance(results[1].error, GitError)
            assert results[2].ref == new_ruby

    def test_remove_then_add_again(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            upstream = make_repo(Path(tmpdir) / "upstream")
            conf = Config(data_dir=Path(tmpdir) / "data")
            registry.add(conf, "lua", str(upstream))

            registry.remove(conf, "lua")
            assert registry.list_plugins(conf) == []

            registry.add(conf, "lua", str(upstream))
            assert [listing.name for listing in registry.list_plugins(conf)] == ["lua"]
