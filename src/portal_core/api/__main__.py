"""Entry point: python -m portal_core.api"""

from portal_core.api.runner import main

main()
