"""Example package for deadexport: `deadexport --path example_project/src --scope "project.**" project.values`"""
