"""
Contract Deployment Entry Point
Deploys KipuBank and prints its address
"""

import sys

from deployment.cli import main

if __name__ == "__main__":
    sys.exit(main())
