"""Internal implementation package for tinmesh.

Import public names from ``tinmesh`` itself; module layout below this
package may change.
"""
