import pytest

from diff_parser import (
    FileDiff,
    collect_test_paths,
    filter_files,
    has_matching_test,
    parse_diff,
    should_review_file,
)
from reviewer import review_diff

SAMPLE_DIFF = """\
diff --git a/src/Profile.tsx b/src/Profile.tsx
new file mode 100644
index 0000000..1111111
--- /dev/null
+++ b/src/Profile.tsx
@@ -0,0 +1,4 @@
+import React from 'react';
+export function Profile() {
+  return <img src="/me.png" />;
+}
diff --git a/README.md b/README.md
index 1111111..2222222 100644
--- a/README.md
+++ b/README.md
@@ -1,1 +1,2 @@
 # App
+More docs
diff --git a/package-lock.json b/package-lock.json
index 3333333..4444444 100644
--- a/package-lock.json
+++ b/package-lock.json
@@ -1 +1 @@
-{}
+{ }
"""

TESTED_DIFF = """\
diff --git a/src/Profile.tsx b/src/Profile.tsx
index 1111111..2222222 100644
--- a/src/Profile.tsx
+++ b/src/Profile.tsx
@@ -10,2 +10,3 @@
 const a = 1;
+console.log(a);
 const b = 2;
diff --git a/src/Profile.test.tsx b/src/Profile.test.tsx
new file mode 100644
index 0000000..5555555
--- /dev/null
+++ b/src/Profile.test.tsx
@@ -0,0 +1,1 @@
+it('renders', () => expect(1).toBe(1));
"""


def test_parse_diff():
    files = parse_diff(SAMPLE_DIFF)
    assert [f.filename for f in files] == ["src/Profile.tsx", "README.md", "package-lock.json"]

    profile = files[0]
    assert profile.status == "added"
    assert profile.additions == 4
    assert profile.added_lines[2] == (3, '  return <img src="/me.png" />;')
    assert profile.target_length == 4


def test_added_lines_keep_new_file_numbers():
    profile = parse_diff(TESTED_DIFF)[0]
    assert profile.status == "modified"
    assert profile.added_lines == [(11, "console.log(a);")]
    assert profile.target_length == 12


def test_filter_files_keeps_frontend_sources():
    assert [f.filename for f in filter_files(parse_diff(SAMPLE_DIFF))] == ["src/Profile.tsx"]


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("src/App.tsx", True),
        ("styles/main.scss", True),
        ("dist/bundle.min.js", False),
        ("node_modules/react/index.js", False),
        ("types/global.d.ts", False),
        ("vite.config.ts", False),
        ("server/app.py", False),
    ],
)
def test_should_review_file(filename, expected):
    assert should_review_file(filename) is expected


def test_deleted_files_are_skipped():
    deleted = FileDiff(filename="src/Old.tsx", status="deleted", additions=0, deletions=9)
    assert filter_files([deleted]) == []


def test_matching_test_paths():
    paths = collect_test_paths(parse_diff(TESTED_DIFF))
    assert paths == {"src/Profile.test.tsx"}
    assert has_matching_test("src/Profile.tsx", paths)
    assert not has_matching_test("src/Header.tsx", paths)


def test_review_diff(config):
    reviews = review_diff(SAMPLE_DIFF, config)
    assert len(reviews) == 1
    review = reviews[0]
    assert review.filename == "src/Profile.tsx"
    assert review.error is None
    ids = {f.rule_id for f in review.report.findings}
    assert "accessibility.missing-alt-text" in ids
    # No test file in the diff: coverage is unknown, not missing
    assert "testing.missing-tests" not in ids


def test_review_diff_counts_tests_in_the_same_diff(config):
    reviews = review_diff(TESTED_DIFF, config)
    by_name = {r.filename: r for r in reviews}
    profile = by_name["src/Profile.tsx"].report
    assert [f.rule_id for f in profile.findings] == ["quality.console-statements"]
    assert profile.findings[0].locations[0].line == 11


def added_file_diff(filename, line_count):
    body = "".join(f"+// line {n}\n" for n in range(1, line_count + 1))
    return (
        f"diff --git a/{filename} b/{filename}\n"
        "new file mode 100644\n"
        "index 0000000..1111111\n"
        "--- /dev/null\n"
        f"+++ b/{filename}\n"
        f"@@ -0,0 +1,{line_count} @@\n"
        f"{body}"
    )


LATE_HUNK_DIFF = """\
diff --git a/src/Table.tsx b/src/Table.tsx
index 1111111..2222222 100644
--- a/src/Table.tsx
+++ b/src/Table.tsx
@@ -598,2 +598,3 @@
 const a = 1;
+console.log(a);
 const b = 2;
"""


def test_new_file_length_is_known(config):
    review = review_diff(added_file_diff("src/Big.ts", 320), config)[0]
    ids = {f.rule_id for f in review.report.findings}
    assert "quality.file-too-long" in ids


def test_modified_file_length_is_unknown(config):
    review = review_diff(LATE_HUNK_DIFF, config)[0]
    ids = {f.rule_id for f in review.report.findings}
    assert "quality.file-too-long" not in ids
    assert "quality.console-statements" in ids
