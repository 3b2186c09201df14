from radrecon.algorithms.dcf.dcf_ramp import dcf_ramp

__all__ = ["dcf_ramp"]
