from setuptools import setup, Command
import subprocess

VERSION = '0.1.0'

datafiles = [('share/doc/qemupull', ['qemupull.cfg'])]

class pytest(Command):
    user_options = []
    def initialize_options(self): pass
    def finalize_options(self): pass
    def run(self):
        try:
            errno = subprocess.call('py.test-3 tests --verbose --tb=short --junitxml=tests/results.xml'.split())
        except OSError as e:
            if e.errno == 2:
                raise OSError(2, "No such file or directory: py.test")
            raise
        raise SystemExit(errno)

setup(name='qemupull',
      version=VERSION,
      description='Load-aware QEMU image installer for network lab templates',
      author='The qemupull developers',
      license='LGPLv2',
      package_dir={'qemupull': 'qemupull'},
      packages=['qemupull'],
      scripts=['qemupull-install'],
      install_requires=['requests', 'monotonic', 'PyYAML', 'rich'],
      extras_require={'test': ['pytest']},
      python_requires='>=3.6',
      cmdclass={'test' : pytest },
      data_files = datafiles,
      )
