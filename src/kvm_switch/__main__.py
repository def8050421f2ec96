import sys

from kvm_switch.main import main

sys.exit(main())
