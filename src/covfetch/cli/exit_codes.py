# mirror <sysexits.h>
EXIT_OK = 0  # Normal success
EXIT_GENERIC = 1  # Generic failure (fallback)
EXIT_DATAERR = 65  # Input data was invalid (e.g., malformed exec file)
EXIT_NOINPUT = 66  # Input file not found
EXIT_UNAVAILABLE = 69  # Remote agent unreachable or fetch failed
EXIT_CONFIG = 78  # Invalid source or configuration
