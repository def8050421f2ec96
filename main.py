import sys
import os

# Run from a checkout without installing
current_dir = os.path.dirname(os.path.abspath(__file__))
src_dir = os.path.join(current_dir, 'src')
sys.path.insert(0, src_dir)

from kvm_switch.main import main

if __name__ == "__main__":
    sys.exit(main())
