"""Process exit codes for the relpipe CLI.

A failed run exits with the code of the first failing stage's error class.
The numeric values are part of the CLI contract and should remain stable:
- 0: Success
- 1: User error (bad reference, invalid config)
- 2: Environment error (missing gpg/gh/git, missing secrets)
- 3: Build error (compile, package, sign or store failure)
- 4: Network error (release creation failed)
- 5: I/O error (history query failed, local file errors)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
