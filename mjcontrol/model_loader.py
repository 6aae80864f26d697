import os
import mujoco


def _is_xml_string(source: str) -> bool:
    return source.lstrip().startswith("<")


def load_model(source: str) -> mujoco.MjModel:
    """
    Loads a MuJoCo model from an MJCF file path or a raw MJCF string.

    Args:
        source: Path to an ``.xml`` file, or MJCF XML text.

    Returns:
        A mujoco.MjModel instance.
    """
    if _is_xml_string(source):
        return mujoco.MjModel.from_xml_string(source)
    if source.endswith(".xml"):
        if not os.path.exists(source):
            raise FileNotFoundError(f"Model file not found: {source}")
        return mujoco.MjModel.from_xml_path(source)
    raise ValueError(f"Unsupported model source: {source}. Only .xml files or MJCF strings are supported.")


def load_simulation(source: str) -> tuple[mujoco.MjModel, mujoco.MjData]:
    model = load_model(source)
    return model, mujoco.MjData(model)
