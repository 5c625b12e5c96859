'''
Finds the files a run works on: directory scans filtered by extension and
name rules, and the smart search used to turn a bare name into one file.
'''

import logging
import os
from pysigntool import config

logger = logging.getLogger(__name__)


class CandidateFile:
    def __init__(self, path: str):
        self.path_ = os.path.abspath(path)
        self.extension_ = os.path.splitext(self.path_)[1].lower()

    def path(self) -> str:
        return self.path_

    def extension(self) -> str:
        return self.extension_

    def name(self) -> str:
        return os.path.basename(self.path_)

    def exists(self) -> bool:
        return os.path.isfile(self.path_)

    def size(self) -> int:
        return os.path.getsize(self.path_)

    def is_empty(self) -> bool:
        return self.size() == 0

    def __repr__(self):
        return 'CandidateFile(%r)' % self.path_


def _warn_unreadable(error: OSError):
    logger.warning('cannot read directory %s: %s', error.filename, error.strerror or error)


def _list_files(root: str, recursive: bool):
    if not recursive:
        for entry in sorted(os.listdir(root)):
            path = os.path.join(root, entry)
            if os.path.isfile(path):
                yield path
        return

    for dir_path, dir_names, file_names in os.walk(root, onerror=_warn_unreadable):
        for file_name in file_names:
            yield os.path.join(dir_path, file_name)


def _list_by_extension(root: str, recursive: bool, extension: str) -> list:
    return [path for path in _list_files(root, recursive) if os.path.splitext(path)[1].lower() == extension]


def _rule_for(extension: str, name_rules: list):
    return next((x for x in name_rules if x.extension() == extension), None)


def find_candidate_files(root: str, recursive: bool, extensions=None, name_rules=None) -> list:
    """
    Collect files under root whose extension is one of extensions.

    Files of an extension that has a NameRule must also match the rule's
    prefix. A listing error for one extension is logged and that extension
    contributes nothing. The result is absolute, deduplicated and sorted.
    """
    if not extensions:
        extensions = config.DEFAULT_EXTENSIONS
    if name_rules is None:
        name_rules = []

    root = os.path.abspath(root)
    found = []
    for extension in sorted(set(config.normalize_extension(x) for x in extensions)):
        try:
            files = _list_by_extension(root, recursive, extension)
        except OSError as ex:
            logger.warning('error searching for %s files in %s: %s', extension, root, ex)
            print('WARNING: Error searching for %s files' % extension)
            continue

        rule = _rule_for(extension, name_rules)
        if extension == config.PRIMARY_EXTENSION or not rule:
            filtered = files
            print('Found %d %s files' % (len(filtered), extension))
        else:
            filtered = [x for x in files if rule.accepts(os.path.basename(x))]
            print("Found {0} {1} files starting with '{2}' (filtered from {3} total)".format(
                len(filtered), extension, rule.prefix(), len(files)))
        found.extend(filtered)

    result = sorted(set(os.path.abspath(x) for x in found))
    print('TOTAL FILES TO PROCESS: %d' % len(result))
    return result


class SearchResult:
    RESOLVED = 'resolved'
    AMBIGUOUS = 'ambiguous'
    NOT_FOUND = 'not_found'

    def __init__(self, status: str, candidates: list):
        self.status_ = status
        self.candidates_ = candidates

    @classmethod
    def from_matches(cls, matches: list):
        if not matches:
            return cls(cls.NOT_FOUND, [])
        if len(matches) == 1:
            return cls(cls.RESOLVED, matches)
        return cls(cls.AMBIGUOUS, matches)

    def status(self) -> str:
        return self.status_

    def candidates(self) -> list:
        return self.candidates_

    def path(self):
        if self.status_ == self.RESOLVED:
            return self.candidates_[0]
        return None


def smart_find(root: str, term: str, extensions=None) -> SearchResult:
    if extensions is None:
        extensions = config.SMART_SEARCH_EXTENSIONS
    if not os.path.isdir(root):
        print('ERROR: Directory does not exist: %s' % root)
        return SearchResult(SearchResult.NOT_FOUND, [])

    wanted = term.lower()
    matches = []
    for path in _list_files(os.path.abspath(root), True):
        stem, ext = os.path.splitext(os.path.basename(path))
        if stem.lower() == wanted and ext.lower() in extensions:
            matches.append(path)

    result = SearchResult.from_matches(sorted(matches))
    if result.status() == SearchResult.NOT_FOUND:
        print("ERROR: No files found matching '%s' in %s" % (term, root))
    return result


def prompt_selection(candidates: list, input_func=input):
    print('Multiple files found. Select one of the following:')
    for i, path in enumerate(candidates, 1):
        print('%d. %s' % (i, path))

    try:
        answer = input_func('\nEnter selection (1-%d): ' % len(candidates))
    except (EOFError, KeyboardInterrupt):
        print()
        return None
    try:
        return int(answer.strip())
    except (ValueError, AttributeError):
        return None


def resolve_search(result: SearchResult, chooser=prompt_selection):
    """
    Turn a smart search result into a single path, or None.
    Ambiguous results are handed to chooser, which returns a 1-based index.
    """
    if result.status() == SearchResult.RESOLVED:
        print('Found: %s' % result.path())
        return result.path()
    if result.status() == SearchResult.NOT_FOUND:
        return None

    candidates = result.candidates()
    selection = chooser(candidates)
    if selection is None or selection < 1 or selection > len(candidates):
        print('ERROR: Invalid selection')
        return None

    selected = candidates[selection - 1]
    print('Selected: %s' % selected)
    return selected
