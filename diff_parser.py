"""Parser for unified diff format using unidiff library."""

from dataclasses import dataclass, field

from unidiff import PatchSet


@dataclass
class FileDiff:
    """Parsed diff for a single file."""
    filename: str
    status: str                           # added, deleted, modified, renamed
    additions: int                        # count of added lines
    deletions: int                        # count of deleted lines
    added_lines: list[tuple[int, str]] = field(default_factory=list)   # (line_num, content)
    target_length: int = 0                # highest line number seen in the new file


def parse_diff(diff_text: str) -> list[FileDiff]:
    """
    Parse a unified diff into structured FileDiff objects.

    Args:
        diff_text: Raw unified diff string

    Returns:
        List of FileDiff objects, one per file
    """
    patch_set = PatchSet(diff_text)
    files = []

    for patched_file in patch_set:
        # Determine status
        if patched_file.is_added_file:
            status = "added"
        elif patched_file.is_removed_file:
            status = "deleted"
        elif patched_file.is_rename:
            status = "renamed"
        else:
            status = "modified"

        added_lines = []
        target_length = 0

        for hunk in patched_file:
            # Hunk header gives the extent of the new file covered by this hunk
            target_length = max(target_length, hunk.target_start + hunk.target_length - 1)
            for line in hunk:
                if line.is_added:
                    added_lines.append((line.target_line_no, line.value.rstrip('\n')))

        files.append(FileDiff(
            filename=patched_file.path,
            status=status,
            additions=patched_file.added,
            deletions=patched_file.removed,
            added_lines=added_lines,
            target_length=target_length,
        ))

    return files


# Only these are frontend source units
FRONTEND_EXTENSIONS = {
    '.js', '.jsx', '.ts', '.tsx', '.mjs', '.cjs',
    '.vue', '.svelte', '.html', '.htm',
    '.css', '.scss', '.sass', '.less',
}

# File extensions to skip during review
SKIP_EXTENSIONS = {
    '.min.js', '.min.css', '.map',            # Build artifacts
    '.d.ts',                                  # Type declarations
}

SKIP_FILENAMES = {
    'package-lock.json', 'yarn.lock', 'pnpm-lock.yaml',
    'vite.config.ts', 'vite.config.js', 'webpack.config.js',
    'jest.config.js', 'jest.config.ts', 'tailwind.config.js',
}

SKIP_DIRECTORIES = {'node_modules/', 'vendor/', 'dist/', 'build/', '.git/', 'coverage/', '.next/'}


def should_review_file(filename: str) -> bool:
    """Check if file should be reviewed based on name/extension."""
    # Check directory
    for skip_dir in SKIP_DIRECTORIES:
        if filename.startswith(skip_dir) or f'/{skip_dir}' in filename:
            return False

    # Check exact filename
    basename = filename.split('/')[-1]
    if basename in SKIP_FILENAMES:
        return False

    lower = filename.lower()
    for ext in SKIP_EXTENSIONS:
        if lower.endswith(ext):
            return False

    return any(lower.endswith(ext) for ext in FRONTEND_EXTENSIONS)


def filter_files(files: list[FileDiff], include_deletions: bool = False) -> list[FileDiff]:
    """Filter out files that shouldn't be reviewed."""
    result = []

    for file in files:
        if not should_review_file(file.filename):
            continue
        if not include_deletions and file.status == 'deleted':
            continue
        if not include_deletions and len(file.added_lines) == 0:
            continue
        result.append(file)

    return result


def collect_test_paths(files: list[FileDiff]) -> set[str]:
    """Paths in the diff that are test files (``*.test.*`` / ``*.spec.*``)."""
    return {
        f.filename for f in files
        if '.test.' in f.filename or '.spec.' in f.filename or '/__tests__/' in f.filename
    }


def has_matching_test(filename: str, test_paths: set[str]) -> bool:
    """Whether *test_paths* contains a test for *filename* (same base name)."""
    basename = filename.split('/')[-1].split('.')[0]
    return any(p.split('/')[-1].split('.')[0] == basename for p in test_paths)
