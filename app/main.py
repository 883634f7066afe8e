# -*- coding: utf-8 -*-
from pathlib import Path
import argparse
import logging
import sys

if __package__ is None:
    sys.path.append(str(Path(__file__).resolve().parents[1]))

from ui.advisor_gui import AdvisorGUI


def main(argv=None):
    parser = argparse.ArgumentParser(description="AI Hairstyle Advisor")
    parser.add_argument("--offline", action="store_true", help="demo mode without the AI service")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = AdvisorGUI(offline=args.offline)
    app.mainloop()


if __name__ == "__main__":
    main()
