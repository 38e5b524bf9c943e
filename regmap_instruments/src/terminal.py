"""Terminal utility for colored console output."""


class ColorPrinter:
    """
    Prints tagged, ANSI-colored lines for the scanner and the REPL.

    Library diagnostics go through the logging module instead; this is
    only for output a person at the console is meant to read.
    """

    HEADER = "\033[95m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    RESET = "\033[0m"
    BOLD = "\033[1m"

    @staticmethod
    def _emit(color, tag, message):
        prefix = f"[{tag}] " if tag else ""
        print(f"{color}{prefix}{message}{ColorPrinter.RESET}")

    @staticmethod
    def info(message):
        ColorPrinter._emit(ColorPrinter.BLUE, "INFO", message)

    @staticmethod
    def success(message):
        ColorPrinter._emit(ColorPrinter.GREEN, "SUCCESS", message)

    @staticmethod
    def warning(message):
        ColorPrinter._emit(ColorPrinter.YELLOW, "WARNING", message)

    @staticmethod
    def error(message):
        ColorPrinter._emit(ColorPrinter.RED, "ERROR", message)

    @staticmethod
    def cyan(message):
        ColorPrinter._emit(ColorPrinter.CYAN, "", message)

    @staticmethod
    def header(message):
        """Print a bold banner."""
        print(f"\n{ColorPrinter.HEADER}{ColorPrinter.BOLD}{'=' * 60}")
        print(f"   {message.upper()}")
        print(f"{'=' * 60}{ColorPrinter.RESET}\n")

    @staticmethod
    def reading(label, value, unit="", digits=3):
        """Print one measured value, e.g. 'V      12.340 V'."""
        ColorPrinter.cyan(f"{label:<6} {value:>10.{digits}f} {unit}".rstrip())
