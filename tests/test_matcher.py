import pytest

from contextualizer import DefaultIgnore, IgnoreMatcher, IgnoreRule, should_ignore


@pytest.mark.parametrize(
    "path,is_dir,rules,expected",
    [
        # Directory rules only ever match directories
        ("node_modules", True, ["node_modules/"], True),
        ("node_modules/", True, ["node_modules/"], True),
        ("node_modules", False, ["node_modules/"], False),
        # Unanchored rules match at any depth
        ("src/node_modules", True, ["node_modules/"], True),
        ("a/b/dist", True, ["dist/"], True),
        ("sub/app.log", False, ["*.log"], True),
        ("lib/src/a.py", False, ["src/*.py"], True),
        # Multi-segment wildcards
        ("logs/deep/app.log", False, ["**/*.log"], True),
        ("a/b/build", True, ["**/build/"], True),
        # Files below a directory rule
        ("node_modules/bad.js", False, ["node_modules/"], True),
        # Non-matches
        ("src/a.pyc", False, ["src/*.py"], False),
        ("src/file.txt", False, ["node_modules/", "*.log"], False),
        ("distribution.txt", False, ["dist/"], False),
        ("anything", False, [], False),
    ],
)
def test_should_ignore(path, is_dir, rules, expected):
    assert should_ignore(path, is_dir, rules) is expected


@pytest.mark.parametrize(
    "path,is_dir,rules,expected",
    [
        # Rules without a trailing slash never match a directory
        ("simple", True, ["simple"], False),
        ("simple", False, ["simple"], True),
        ("x.log", True, ["*.log"], False),
        ("docs/LICENSE", True, ["LICENSE"], False),
        ("docs/LICENSE", False, ["LICENSE"], True),
        # "*" stops at a slash and there is no descendant matching
        ("foo/bar", False, ["foo/*"], True),
        ("foo/bar", True, ["foo/*"], False),
        ("foo/bar/baz.txt", False, ["foo/*"], False),
        ("foo/bar/baz.txt", False, ["*.txt/"], False),
        # "**" spans segments, including none
        ("app.log", False, ["**/*.log"], True),
        ("a/b/c/d.tmp", False, ["a/**/*.tmp"], True),
        ("a/d.tmp", False, ["a/**/*.tmp"], True),
        ("ab/d.tmp", False, ["a/**/*.tmp"], False),
        # Single characters, classes and braces
        ("a1.txt", False, ["a?.txt"], True),
        ("a/.txt", False, ["a?.txt"], False),
        ("v2.go", False, ["v[0-9].go"], True),
        ("va.go", False, ["v[!0-9].go"], True),
        ("v2.go", False, ["v[!0-9].go"], False),
        ("web/app.ts", False, ["*.{js,ts}"], True),
        ("web/app.py", False, ["*.{js,ts}"], False),
        ("star*.txt", False, ["star\\*.txt"], True),
        ("start.txt", False, ["star\\*.txt"], False),
    ],
)
def test_full_path_glob_semantics(path, is_dir, rules, expected):
    assert should_ignore(path, is_dir, rules) is expected


def test_negation_and_comments_are_literal():
    assert should_ignore("!keep", False, ["!keep"])
    assert not should_ignore("keep", False, ["!keep"])
    assert not should_ignore("other.txt", False, ["!keep"])
    assert should_ignore("#notes", False, ["#notes"])
    assert not should_ignore("notes", False, ["#notes"])


def test_leading_slash_never_matches_relative_paths():
    rules = ["/dist/"]
    assert not should_ignore("dist", True, rules)
    assert not should_ignore("packages/dist", True, rules)
    assert not should_ignore("dist/app.js", False, rules)


def test_empty_rule_matches_nothing():
    assert not should_ignore("src", True, [""])
    assert not should_ignore("src/main.go", False, [""])


def test_trailing_slash_is_not_doubled():
    matcher = IgnoreMatcher(["dist/"])
    assert matcher.matches("dist/", True) == matcher.matches("dist", True)


def test_rule_order_is_irrelevant():
    rules = ["*.log", "build/", "vendor/"]
    forward = IgnoreMatcher(rules)
    backward = IgnoreMatcher(reversed(rules))
    for path, is_dir in [("a.log", False), ("x/build", True), ("vendor/y.go", False), ("main.go", False)]:
        assert forward.matches(path, is_dir) == backward.matches(path, is_dir)


def test_default_catalog():
    assert isinstance(DefaultIgnore.PATTERNS, tuple)
    assert should_ignore("package-lock.json", False, DefaultIgnore.PATTERNS)
    assert should_ignore("web/node_modules", True, DefaultIgnore.PATTERNS)
    assert should_ignore("assets/logo.png", False, DefaultIgnore.PATTERNS)
    assert not should_ignore("src/main.go", False, DefaultIgnore.PATTERNS)
    # "simple" names a file, so a directory called simple is still walked
    assert not should_ignore("tools/cli/cmd/simple", True, DefaultIgnore.PATTERNS)
    assert not should_ignore("tools/cli/cmd/simple/build.go", False, DefaultIgnore.PATTERNS)


@pytest.mark.parametrize("text", ["[vendor/", "{vendor/", "vendor/\\"])
def test_prefix_check_survives_uncompilable_rule(text, caplog):
    matcher = IgnoreMatcher([text])

    assert f"Invalid ignore pattern {text!r}" in caplog.text
    rule = matcher.rules[0]
    assert rule.direct is None and rule.anywhere is None


def test_uncompilable_directory_rule_keeps_prefix_case(caplog):
    matcher = IgnoreMatcher(["[vendor/"])

    assert "Invalid ignore pattern '[vendor/'" in caplog.text
    assert matcher.matches("[vendor/lib.js", False)
    assert not matcher.matches("[vendor", True)
    assert not matcher.matches("src/lib.js", False)


def test_rules_compile_once():
    rule = IgnoreRule.compile("*.log")
    assert rule.direct is not None and rule.anywhere is not None
    assert IgnoreRule.compile("**/*.log").anywhere is None
    assert IgnoreRule.compile("/abs").anywhere is None
