"""
Input/Output Manager (HDF5 / VTK)
Saves assembled ribbon meshes to .h5 files, reads them back, and exports them as
VTK PolyData for external viewers.
"""
from __future__ import annotations

import json
import logging
import os
from importlib.metadata import version, PackageNotFoundError
from typing import List, Optional, Sequence, TYPE_CHECKING

import h5py
import numpy as np
import pyvista as pv

from proteinribbon.model.mesh import RibbonMesh
from proteinribbon.model.secondary_structure import StructureType

if TYPE_CHECKING:
    from proteinribbon.config import RibbonConfig
    from proteinribbon.controller.pipeline import RibbonResult

logger = logging.getLogger(__name__)

try:
    APP_VERSION = version("proteinribbon")
except PackageNotFoundError:
    APP_VERSION = "0.0.0-dev"

MESH_GROUP = "meshes"


def _mesh_position(group_name: str) -> int:
    """Write position encoded in a `mesh_<i>` group name."""
    return int(group_name.rsplit("_", 1)[-1])


class IOManager:

    @staticmethod
    def save_meshes(
        meshes: Sequence[RibbonMesh],
        filepath: str,
        config: Optional[RibbonConfig] = None
    ) -> None:
        """
        Write meshes to an HDF5 file, one group per mesh in order.

        Args:
            meshes: Meshes to store (e.g. `RibbonResult.meshes`).
            filepath: Destination .h5 path; overwritten if it exists.
            config: Optional configuration stored alongside for reproducibility.
        """
        logger.info(f"Saving {len(meshes)} meshes to: {filepath}")
        try:
            with h5py.File(filepath, "w") as f:
                f.attrs["version"] = APP_VERSION
                f.attrs["mesh_count"] = len(meshes)
                if config is not None:
                    f.attrs["config_json"] = json.dumps(config.to_dict())

                grp_meshes = f.create_group(MESH_GROUP)
                for i, mesh in enumerate(meshes):
                    grp = grp_meshes.create_group(f"mesh_{i:04d}")
                    grp.attrs["structure_type"] = str(mesh.structure_type or "")
                    grp.attrs["chain_id"] = mesh.chain_id
                    grp.attrs["segment_index"] = mesh.segment_index
                    grp.create_dataset("positions", data=mesh.positions, compression="gzip")
                    grp.create_dataset("normals", data=mesh.normals, compression="gzip")
                    grp.create_dataset("uvs", data=mesh.uvs, compression="gzip")
                    grp.create_dataset("indices", data=mesh.indices, compression="gzip")
                    grp.create_dataset("residue_indices", data=np.array(mesh.residue_indices, dtype=np.int64))

            logger.info(f"Meshes saved to: {filepath}")

        except Exception as e:
            logger.exception(f"Failed to save meshes: {e}")
            raise e

    @staticmethod
    def load_meshes(filepath: str) -> List[RibbonMesh]:
        """Read meshes written by `save_meshes`, in their original order."""
        logger.info(f"Loading meshes from: {filepath}")
        if not h5py.is_hdf5(filepath):
            msg = f"File '{filepath}' is not a valid HDF5 file."
            logger.error(msg)
            raise ValueError(msg)

        meshes: List[RibbonMesh] = []
        try:
            with h5py.File(filepath, "r") as f:
                saved_version = f.attrs.get("version", "unknown")
                if saved_version != APP_VERSION:
                    logger.debug(f"File written by version {saved_version}, reading with {APP_VERSION}.")

                if MESH_GROUP not in f:
                    logger.warning("No mesh group found in file.")
                    return meshes

                grp_meshes = f[MESH_GROUP]
                for name in sorted(grp_meshes.keys(), key=_mesh_position):
                    grp = grp_meshes[name]
                    type_name = grp.attrs.get("structure_type", "")
                    meshes.append(RibbonMesh(
                        positions=grp["positions"][:],
                        normals=grp["normals"][:],
                        uvs=grp["uvs"][:],
                        indices=grp["indices"][:],
                        structure_type=StructureType(type_name) if type_name else None,
                        chain_id=str(grp.attrs.get("chain_id", "")),
                        segment_index=int(grp.attrs.get("segment_index", -1)),
                        residue_indices=tuple(int(i) for i in grp["residue_indices"][:]),
                    ))

            logger.info(f"Loaded {len(meshes)} meshes from: {filepath}")
            return meshes

        except Exception as e:
            logger.exception(f"Failed to load meshes: {e}")
            raise e

    # ---- VTK EXPORT ----
    @staticmethod
    def to_polydata(mesh: RibbonMesh) -> pv.PolyData:
        """Convert a mesh to triangulated PolyData with normals and texture coordinates."""
        if mesh.is_empty:
            return pv.PolyData()

        tris = mesh.triangles
        faces = np.hstack((np.full((len(tris), 1), 3, dtype=np.int64), tris)).ravel()
        pd = pv.PolyData(mesh.positions, faces)
        pd.point_data["Normals"] = mesh.normals
        pd.active_texture_coordinates = mesh.uvs
        pd.field_data["structure_type"] = [str(mesh.structure_type or "")]
        pd.field_data["chain_id"] = [mesh.chain_id]
        pd.field_data["segment_index"] = [mesh.segment_index]
        return pd

    @staticmethod
    def export_vtk(result: RibbonResult, output_dir: str) -> str:
        """
        Export every mesh as its own .vtp file plus `ribbon.vtp` holding all of them.
        Files are named: segment_{index}_{chain}_{type}.vtp

        Returns:
            The output directory.
        """
        if result.is_empty:
            raise ValueError("No meshes to export.")

        os.makedirs(output_dir, exist_ok=True)
        logger.info(f"Exporting {len(result.meshes)} meshes to {output_dir}...")

        for mesh in result.meshes:
            chain = mesh.chain_id or "_"
            filename = f"segment_{mesh.segment_index:04d}_{chain}_{mesh.structure_type}.vtp"
            IOManager.to_polydata(mesh).save(os.path.join(output_dir, filename))

        combined_path = os.path.join(output_dir, "ribbon.vtp")
        IOManager.to_polydata(result.combined()).save(combined_path)

        logger.info(f"Export complete. Load '{combined_path}' in ParaView.")
        return output_dir
