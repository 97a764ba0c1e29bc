BANNER_COLOR = "\033[93m"
RESET_COLOR = "\033[0m"
BANNER_WIDTH = 66


def banner(text: str = "", width: int = BANNER_WIDTH) -> str:
    """Returns a yellow banner with the text centered between '=' signs."""
    if not text:
        return BANNER_COLOR + "=" * width + RESET_COLOR
    padded = f"  {text}  "
    left = (width - len(padded)) // 2
    right = width - len(padded) - left
    return BANNER_COLOR + "=" * left + padded + "=" * right + RESET_COLOR


STARTING_EXECUTION_MSG = banner("STARTING EXECUTION")

STARTING_SIMULATION_MSG = banner("STARTING SIMULATION")

STARTING_TEST_MSG = banner("STARTING TEST")

TEST_COMPLETED_MSG = banner("TEST COMPLETED")

RESULTS_MSG = banner("RESULTS")

SIMULATION_TERMINATED_MSG = banner("SIMULATION TERMINATED")

EXECUTION_TERMINATED_MSG = banner("EXECUTION TERMINATED")

PRESS_TO_EXIT_MSG = banner("Press Enter to exit and close all plots")

PRESS_TO_CONTINUE_MSG = banner("Press Enter to continue")

SECTION_DIVIDER_MSG = banner()
