import os


def get_project_root() -> str:
    """
    Finds the root directory of the project.

    Returns:
        str: The absolute path of the project root.

    Raises:
        FileNotFoundError: If 'setup.py' is not found in any parent directory.
    """
    current_directory = os.getcwd()

    while True:
        if os.path.exists(os.path.join(current_directory, "setup.py")):
            return current_directory

        parent_directory = os.path.dirname(current_directory)

        if parent_directory == current_directory:
            break

        current_directory = parent_directory

    raise FileNotFoundError("Could not find 'setup.py' or reached root directory")
