"""Tag files and find them by boolean tag queries. Plain text files, no database engine.

Layout:
    <store>/
        tagdb.toml        # optional settings
        tags/
            <md5(name)>   # one record per tag
        files/
            <md5(path)>   # one record per file

Record format (UTF-8):
    <canonical name>      # line 1: identity
    +<related name>       # active relation (tag <-> file)
    -<related name>       # removed relation, kept as history

Addresses that collide on the digest are probed as <md5>.01, <md5>.02, ...
Deleted records are renamed <address>.trash and can be recovered.
"""

from tagdb.config import Options, TagDBConfig, init_config, load_config
from tagdb.evaluate import QueryEvaluator, run_query
from tagdb.models import Action, Element, EntityKind
from tagdb.query import compile_to_postfix, is_query
from tagdb.setlist import SetList
from tagdb.store import RelationStore

__all__ = [
    "Action",
    "Element",
    "EntityKind",
    "Options",
    "QueryEvaluator",
    "RelationStore",
    "SetList",
    "TagDBConfig",
    "compile_to_postfix",
    "init_config",
    "is_query",
    "load_config",
    "run_query",
]
