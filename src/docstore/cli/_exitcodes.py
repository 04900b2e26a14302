"""Process exit codes for the docstore CLI."""

SUCCESS = 0
GENERAL_ERROR = 1
USAGE_ERROR = 2
EXECUTION_FAILURE = 3
DATABASE_ERROR = 4
