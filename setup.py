import setuptools

from dynopt import __version__


with open('README.md', 'r') as fh:
    long_description = fh.read()

with open('requirements.txt', 'r') as fh:
    requirements = fh.read().splitlines()

if __name__ == '__main__':
    setuptools.setup(
        name='dynopt',
        version=__version__,
        description="Tutorial toolkit for mathematical programming, block "
                    "diagram simulation, and multibody model inspection",
        long_description=long_description,
        long_description_content_type='text/markdown',
        packages=setuptools.find_packages(include=['dynopt', 'dynopt.*']),
        python_requires='>=3.8',
        install_requires=requirements,
        extras_require={'test': ['pytest']})
