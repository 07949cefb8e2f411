"""CRMS field tools entry point"""

from field_tools.run import main


if __name__ == "__main__":
    main()
