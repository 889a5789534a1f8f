#!/usr/bin/env python
# -*- coding: utf-8 -*-

import setuptools
import os
import sys

# Add the sources to get the version number
basedir = os.path.abspath(os.path.dirname(__file__))
sys.path.insert(0, os.path.join(basedir, 'src'))
import procdetach

setuptools.setup(name='procdetach',
                 version=procdetach.VERSION,
                 description='Run processes as single-instance daemons',
                 author='Tobias Pöppke',
                 author_email='t.poeppke@gmx.de',
                 url='--',
                 packages=setuptools.find_packages('src'),
                 package_dir={'': 'src'},
                 provides=['procdetach'],
                 platforms=['POSIX', 'UNIX', 'Linux'],
                 license='Apache',
                 python_requires='>=3.6',
                 install_requires=["cement>=3.0"],
                 extras_require={'test': ["pytest"]},
                 entry_points={ 'console_scripts':
                                    ['procdetach = procdetach.app:main']},

      )
