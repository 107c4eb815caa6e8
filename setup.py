from setuptools import setup

# Read version from nodekiller/VERSION
with open('nodekiller/VERSION') as f:
    VERSION = f.read().strip()

setup(
    name='nodekiller',
    version=VERSION,
    description='Find and kill local node, vite and bun processes listening on TCP ports',
    long_description=open('README.md', encoding='utf-8').read(),
    long_description_content_type='text/markdown',
    license='MIT',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Operating System :: POSIX',
        'Programming Language :: Python :: 3',
        'Topic :: System :: Networking :: Monitoring',
    ],
    packages=['nodekiller'],
    package_data={'nodekiller': ['VERSION']},
    python_requires='>=3.7',
    install_requires=[
        'psutil',
        'pyyaml',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'nodekiller=nodekiller:cli_entry',
        ],
    },
)
